"""Command-line interface"""
