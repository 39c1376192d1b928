"""
Telehealth Portal

A FastAPI backend for a patient and doctor portal: onboarding, appointment
scheduling, medical documents, messaging and a dashboard.
"""

__version__ = "1.0.0"
