"""Job postings, applications and closed-job role cleanup."""
