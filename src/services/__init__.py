"""Service layer: task lifecycle, authorization and notifications."""
