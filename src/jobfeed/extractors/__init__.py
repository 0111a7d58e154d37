"""LLM classifier client and response parsing"""
