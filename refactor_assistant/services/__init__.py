"""Collaborators of the conversation core: remote client, messenger, workspace, artifacts."""
