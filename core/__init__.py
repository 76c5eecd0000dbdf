"""Helpers shared by the distflow pipeline: commands, config files, archives, templates."""
