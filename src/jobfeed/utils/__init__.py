"""Utility helpers: ATS URL parsing, budgets, rate limiting, text"""
