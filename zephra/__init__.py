"""Zephra API - plans, checkout and Stripe billing reconciliation."""
