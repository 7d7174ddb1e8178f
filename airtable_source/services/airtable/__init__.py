"""Airtable source module: REST client, acquisition, and normalization.

Key entry points:
  - acquisition.run_acquisition(): fetch tables page by page into a PluginContext
  - normalization.normalize(): context → models + tagged objects
"""
