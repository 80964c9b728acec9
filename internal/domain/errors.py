"""
Domain-specific exceptions.

Custom exceptions for domain validation and taxonomy integrity violations.
Skip-level issues (unusable category paths, unmatched metric records) are not
exceptions; they are reported through result objects.
"""


class DomainError(Exception):
    """Base exception for domain errors."""

    def __init__(self, message: str) -> None:
        """
        Initialize domain error.

        Args:
            message: Error message describing the issue.
        """
        self.message = message
        super().__init__(self.message)


class DomainValidationError(DomainError):
    """Exception raised when domain validation fails."""
    pass


class TaxonomyIntegrityError(DomainError):
    """Exception raised when the taxonomy tree is structurally broken."""
    pass


class DanglingParentError(TaxonomyIntegrityError):
    """Exception raised when a node references a parent missing from the node set."""

    def __init__(self, node_id: str, parent_id: str) -> None:
        """
        Initialize dangling parent error.

        Args:
            node_id: The node holding the broken reference.
            parent_id: The parent ID that could not be resolved.
        """
        super().__init__(
            f"Node '{node_id}' references missing parent '{parent_id}'"
        )
        self.node_id = node_id
        self.parent_id = parent_id


class TaxonomyCycleError(TaxonomyIntegrityError):
    """Exception raised when the parent chain of a node loops back on itself."""

    def __init__(self, node_id: str) -> None:
        """
        Initialize cycle error.

        Args:
            node_id: A node that is part of the cycle.
        """
        super().__init__(f"Parent chain of node '{node_id}' contains a cycle")
        self.node_id = node_id


class NodeNotFoundError(DomainError):
    """Exception raised when a taxonomy node is not found."""

    def __init__(self, node_id: str) -> None:
        """
        Initialize node not found error.

        Args:
            node_id: The ID of the node that was not found.
        """
        super().__init__(f"Taxonomy node '{node_id}' not found")
        self.node_id = node_id
