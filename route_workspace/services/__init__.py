"""
Workspace engine services: model stores, derivations, text projection,
validation, directory access and submission.
"""
