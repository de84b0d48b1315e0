"""Read-only query selectors."""

from allowance_kernel.selectors.application_selector import ApplicationSelector

__all__ = ["ApplicationSelector"]
