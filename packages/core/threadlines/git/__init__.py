"""Git collaborators: subprocess runner, shallow-clone resolution, local changes."""
