"""
Customised eTemplates.

Sites adapt shipped templates without touching the server root: an override
row for (app, template set, name) shadows the shipped file and is delivered
through the same transforms and cache.
"""
