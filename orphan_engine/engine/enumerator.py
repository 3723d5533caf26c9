"""
Binding Enumerator for the Orphan Engine.

Lists the authorization bindings of a scope through the binding connector,
normalizing every provider failure into an EnumerationError.
"""

import logging
from typing import List

from ..connectors.base_connector import BindingConnector
from ..exceptions import EnumerationError, describe_error
from ..models import Binding, Scope

logger = logging.getLogger(__name__)


class BindingEnumerator:
    """Enumerates bindings one scope at a time."""

    def __init__(self, binding_client: BindingConnector):
        self.binding_client = binding_client

    def list(self, scope: Scope) -> List[Binding]:
        """
        List all bindings within a scope.

        Args:
            scope: The scope to enumerate

        Returns:
            Bindings in provider order

        Raises:
            EnumerationError: If the scope is inaccessible or the provider call fails
        """
        logger.info(f"Enumerating bindings in scope {scope}")
        try:
            bindings = list(self.binding_client.list_bindings(scope))
        except EnumerationError:
            raise
        except Exception as e:
            raise EnumerationError(scope.id, describe_error(e)) from e

        foreign = [b.binding_id for b in bindings if b.scope.id != scope.id]
        if foreign:
            raise EnumerationError(scope.id, f"provider returned bindings from other scopes: {foreign[:3]}")

        logger.info(f"Found {len(bindings)} bindings in scope {scope}")
        return bindings
