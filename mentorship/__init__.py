"""Session provisioning and settlement sagas for mentoring services."""
