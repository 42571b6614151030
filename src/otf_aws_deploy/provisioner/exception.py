class ProvisioningError(Exception):
    """Raised when a provisioning step cannot reach the state it ensures."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(f"{step}: {message}")
