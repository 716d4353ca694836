"""Staffing models: staff records, job postings and applications."""

from .application import Application
from .job import Job
from .staff import Staff

__all__ = ["Application", "Job", "Staff"]
