"""Airtable source plugin for the content pipeline.

Host lifecycle entry points:
  - bootstrap()              fetch configured tables into the plugin context
  - transform()              append models/objects to the pipeline data
  - get_setup()              setup questions or an interactive procedure
  - get_options_from_setup() setup answers → persisted options
"""
from airtable_source.plugin import NAME, OPTIONS, bootstrap, get_options_from_setup, get_setup, transform

__all__ = ["NAME", "OPTIONS", "bootstrap", "transform", "get_setup", "get_options_from_setup"]
