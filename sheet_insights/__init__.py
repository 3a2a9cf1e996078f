"""Spreadsheet + query -> chart-ready JSON via a streaming LLM."""
