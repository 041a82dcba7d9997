"""
formation_hub.domain — Shared data models, enumerations and errors.

Nothing in here imports from other formation_hub sub-packages
(only stdlib / Pydantic).
"""
