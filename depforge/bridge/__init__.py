"""External collaborators: shell commands, image registries, the S3 bucket."""
