"""Azure Resource Manager bindings for the metadata and deletion collaborators."""
