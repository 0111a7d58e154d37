"""Flask ingestion API and the services behind it"""
