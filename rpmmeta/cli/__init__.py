"""Command line interface for rpmmeta"""
