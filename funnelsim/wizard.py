"""
Funnel Wizard

Guided construction of a funnel snapshot from a product list:

    Frontend ──buy──> OTO 1 ──buy──> OTO 2
                        │              ▲
                        no             │ buy + no
                        ▼              │
                    Downsell 1 ────────┘

- OTOs chain off the last Frontend/OTO via Buy.
- A downsell hangs off its OTO's No Thanks branch.
- A downsell forwards both its Buy and No Thanks traffic to the next OTO.
"""

import itertools
from dataclasses import dataclass
from typing import Iterable, Optional

from .errors import InvalidPriceError, InvalidRateError
from .graph_types import Branch, FunnelEdge, FunnelNode, GraphSnapshot, NodeKind, TrafficSource


@dataclass
class WizardProduct:
    """One product row in the wizard."""
    key: str
    kind: NodeKind
    name: str
    price: float = 0.0
    conversion_rate: float = 0.0
    parent_key: Optional[str] = None
    branch: Optional[Branch] = None
    level: int = 0


class FunnelWizard:
    """Mutable builder for a GraphSnapshot. The Frontend product is permanent."""

    FRONTEND_KEY = "1"

    def __init__(self, frontend_price: float = 0.0, frontend_conversion_rate: float = 0.0):
        self._keys = itertools.count(2)
        self.products: list[WizardProduct] = [
            WizardProduct(
                key=self.FRONTEND_KEY,
                kind=NodeKind.FRONTEND,
                name="Frontend",
                price=frontend_price,
                conversion_rate=frontend_conversion_rate,
            )
        ]

    def get_product(self, key: str) -> WizardProduct:
        for product in self.products:
            if product.key == key:
                return product
        raise KeyError(key)

    def add_oto(self, price: float = 0.0, conversion_rate: float = 0.0, name: Optional[str] = None) -> str:
        """Append an OTO reached by Buy from the last Frontend/OTO. Returns its key."""
        parent = next(
            (p for p in reversed(self.products) if p.kind in (NodeKind.FRONTEND, NodeKind.ONE_TIME_OFFER)),
            None,
        )
        oto_count = sum(1 for p in self.products if p.kind == NodeKind.ONE_TIME_OFFER)
        product = WizardProduct(
            key=str(next(self._keys)),
            kind=NodeKind.ONE_TIME_OFFER,
            name=name or f"OTO {oto_count + 1}",
            price=price,
            conversion_rate=conversion_rate,
            parent_key=parent.key if parent else None,
            branch=Branch.BUY,
        )
        self.products.append(product)
        return product.key

    def add_downsell(
        self,
        parent_key: str,
        price: float = 0.0,
        conversion_rate: float = 0.0,
        name: Optional[str] = None,
    ) -> str:
        """
        Insert a downsell right after its parent OTO, reached by No Thanks.

        Raises:
            KeyError: unknown parent
            ValueError: parent is not an OTO or already has a downsell
        """
        parent = self.get_product(parent_key)
        if parent.kind != NodeKind.ONE_TIME_OFFER:
            raise ValueError(f"Downsells can only follow an OTO, not {parent.kind.value}")
        if any(p.parent_key == parent_key and p.branch == Branch.NO_THANKS for p in self.products):
            raise ValueError(f"'{parent.name}' already has a downsell")

        downsell_count = sum(1 for p in self.products if p.kind == NodeKind.DOWNSELL)
        product = WizardProduct(
            key=str(next(self._keys)),
            kind=NodeKind.DOWNSELL,
            name=name or f"Downsell {downsell_count + 1}",
            price=price,
            conversion_rate=conversion_rate,
            parent_key=parent_key,
            branch=Branch.NO_THANKS,
            level=parent.level + 1,
        )
        index = self.products.index(parent)
        self.products.insert(index + 1, product)
        return product.key

    def update_product(self, key: str, **fields) -> None:
        product = self.get_product(key)
        for name, value in fields.items():
            if name not in ('name', 'price', 'conversion_rate'):
                raise ValueError(f"Field '{name}' cannot be edited")
            setattr(product, name, value)

    def remove_product(self, key: str) -> None:
        """Remove a product. The Frontend cannot be removed."""
        product = self.get_product(key)
        if product.kind == NodeKind.FRONTEND:
            raise ValueError("Every funnel must have a Frontend product")
        self.products.remove(product)

    def build(self, sources: Iterable[TrafficSource] = ()) -> GraphSnapshot:
        """
        Produce the snapshot.

        Raises:
            InvalidPriceError / InvalidRateError: a product has a price or
                conversion rate that is not > 0
        """
        for product in self.products:
            if not product.price or product.price <= 0:
                raise InvalidPriceError(
                    f"Please enter a valid price for '{product.name}'", node_id=product.key)
            if not product.conversion_rate or product.conversion_rate <= 0:
                raise InvalidRateError(
                    f"Please enter a valid conversion rate for '{product.name}'", node_id=product.key)

        node_ids: dict[str, str] = {}
        nodes = []
        for index, product in enumerate(self.products):
            if product.kind == NodeKind.FRONTEND:
                node_id = "frontend"
            else:
                node_id = f"{product.kind.value}-{index}"
            node_ids[product.key] = node_id
            nodes.append(FunnelNode(
                id=node_id,
                kind=product.kind,
                price=product.price,
                conversion_rate=product.conversion_rate,
                label=product.name,
            ))

        edges = []
        for product in self.products:
            if not product.parent_key:
                continue
            source = node_ids.get(product.parent_key)
            target = node_ids.get(product.key)
            if not source or not target:
                continue
            edges.append(_edge(source, target, product.branch))

        for index, product in enumerate(self.products):
            if product.kind != NodeKind.DOWNSELL:
                continue
            next_oto = next(
                (p for p in self.products[index + 1:] if p.kind == NodeKind.ONE_TIME_OFFER),
                None,
            )
            if next_oto is None:
                continue
            source, target = node_ids[product.key], node_ids[next_oto.key]
            edges.append(_edge(source, target, Branch.BUY))
            edges.append(_edge(source, target, Branch.NO_THANKS))

        return GraphSnapshot(nodes=nodes, edges=edges, sources=list(sources))


def _edge(source: str, target: str, branch: Branch) -> FunnelEdge:
    handle = "yes" if branch == Branch.BUY else "no"
    return FunnelEdge(id=f"{source}-{target}-{handle}", source=source, target=target, branch=branch)
