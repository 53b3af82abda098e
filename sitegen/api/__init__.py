"""HTTP API for submitting jobs and inspecting projects."""
