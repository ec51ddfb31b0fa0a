"""Order materialization from completed checkout sessions, and order reads.

A completed checkout session becomes an order through a fixed sequence of
datastore writes:

1. insert the order with status ``processing``
2. insert every order item in one statement
3. delete exactly the cart items that were priced
4. flip the order to ``completed``

PostgREST cannot wrap these in one transaction, so each write registers an
undo action. If any step fails, the undo actions run in reverse and the
webhook fails, letting Stripe redeliver it. ``completed`` is only set once
everything else has succeeded, so a completed order always has its items
and an emptied cart.

A ``processing`` order found on redelivery is never blindly deleted. If its
items were written, the attempt that wrote them got past the point of no
return and the order is finished in place. An itemless order is left alone
while it may still be in flight, and discarded once it is clearly abandoned.
The final flip is conditional on the order still being ``processing``, so
two deliveries racing on the same session cannot both complete it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable

from supabase import Client

from src.api.middleware.error_handler import (
    CartNotFoundError,
    MissingCorrelationError,
    NotFoundError,
    OrderPersistenceError,
)
from src.core.redaction import mask_identifier
from src.models.cart import Cart, CartItem, PricedCartItem
from src.models.order import Order, OrderCreate
from src.services.upstream import is_unique_violation, translate_supabase_error

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
PAID_STATUSES = ("paid", "no_payment_required")
# An itemless processing order older than this was abandoned mid-write
STALE_ORDER_AFTER = timedelta(minutes=10)


def to_money(value: Any) -> Decimal:
    """Convert a datastore numeric value to a Decimal rounded to cents."""
    try:
        return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise OrderPersistenceError(f"Invalid monetary amount: {value!r}") from e


def cents_to_money(amount: int | None) -> Decimal:
    """Convert a Stripe amount in cents to a Decimal."""
    if not amount:
        return Decimal("0.00")
    return (Decimal(amount) / 100).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_subtotal(items: list[PricedCartItem]) -> Decimal:
    """Sum of unit price times quantity over all cart items."""
    subtotal = sum((item["price"] * item["quantity"] for item in items), Decimal("0"))
    return subtotal.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class MaterializationResult:
    """Outcome of handling one completed checkout session.

    ``outcome`` is ``created``, ``duplicate`` or ``skipped``.
    """

    outcome: str
    order_id: str | None = None
    total: Decimal | None = None
    item_count: int = 0


@dataclass
class CompensationLog:
    """Undo actions for writes already applied, replayed newest first."""

    actions: list[tuple[str, Callable[[], Any]]] = field(default_factory=list)

    def record(self, description: str, action: Callable[[], Any]) -> None:
        self.actions.append((description, action))

    def rollback(self) -> list[str]:
        """Run every undo action; return the descriptions of those that failed."""
        failed = []
        for description, action in reversed(self.actions):
            try:
                action()
                logger.info("Rolled back: %s", description)
            except Exception as e:
                logger.error("Rollback step failed (%s): %s", description, type(e).__name__)
                failed.append(description)
        self.actions.clear()
        return failed


class OrderService:
    """Service for turning paid checkout sessions into orders."""

    def __init__(self, client: Client) -> None:
        """Initialize order service with the Supabase datastore client."""
        self.client = client

    # Reads

    async def _find_order_by_session(self, stripe_session_id: str) -> dict[str, Any] | None:
        try:
            response = (
                self.client.table("orders")
                .select("id, status, total, created_at, order_items(id, product_id)")
                .eq("stripe_session_id", stripe_session_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise translate_supabase_error(e, "look up existing order") from e
        return response.data[0] if response and response.data else None

    async def _get_cart(self, user_id: str) -> Cart:
        try:
            response = (
                self.client.table("carts")
                .select("id")
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise translate_supabase_error(e, "load cart") from e

        if not response or not response.data:
            raise CartNotFoundError(f"No cart found for user {mask_identifier(user_id)}")
        return response.data[0]

    async def _load_cart_items(self, cart_id: str) -> list[PricedCartItem]:
        try:
            response = (
                self.client.table("cart_items")
                .select("id, cart_id, product_id, quantity, products(name, price)")
                .eq("cart_id", cart_id)
                .execute()
            )
        except Exception as e:
            raise translate_supabase_error(e, "load cart items") from e

        items: list[PricedCartItem] = []
        for row in response.data or []:
            product = row.get("products")
            if not product:
                raise OrderPersistenceError(f"Product {row.get('product_id')} in cart no longer exists")
            items.append(
                {
                    "id": row["id"],
                    "cart_id": row["cart_id"],
                    "product_id": row["product_id"],
                    "product_name": product.get("name") or "",
                    "quantity": int(row["quantity"]),
                    "price": to_money(product["price"]),
                }
            )
        return items

    async def list_orders(self, user_id: str) -> list[Order]:
        """Get all orders for a user, newest first, with their items.

        Args:
            user_id: The owning user's ID.

        Returns:
            list[Order]: Order rows, each with an ``items`` list.
        """
        try:
            response = (
                self.client.table("orders")
                .select("*, order_items(*)")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as e:
            raise translate_supabase_error(e, "list orders") from e

        return [self._with_items(row) for row in response.data or []]

    async def get_order(self, order_id: str, user_id: str) -> Order:
        """Get one of the user's orders by ID.

        Raises:
            NotFoundError: If the order does not exist or belongs to someone else.
        """
        try:
            response = (
                self.client.table("orders")
                .select("*, order_items(*)")
                .eq("id", order_id)
                .eq("user_id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise translate_supabase_error(e, "load order") from e

        if not response or not response.data:
            raise NotFoundError("Order not found")
        return self._with_items(response.data[0])

    @staticmethod
    def _with_items(row: dict[str, Any]) -> Order:
        order = dict(row)
        order["items"] = order.pop("order_items", None) or []
        return order

    # Materialization

    @staticmethod
    def _is_stale(order: dict[str, Any]) -> bool:
        created_at = order.get("created_at")
        if not created_at:
            return True
        try:
            created = datetime.fromisoformat(str(created_at))
        except ValueError:
            return True
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) - created > STALE_ORDER_AFTER

    async def _order_status(self, order_id: str) -> str | None:
        try:
            response = self.client.table("orders").select("status").eq("id", order_id).limit(1).execute()
        except Exception as e:
            logger.error("Could not re-read order %s: %s", order_id, type(e).__name__)
            return None
        return response.data[0]["status"] if response and response.data else None

    async def _finish_order(self, order: dict[str, Any], user_id: str) -> MaterializationResult:
        """Complete an order whose items were written by an earlier attempt.

        The order is kept; any cart rows for the ordered products that the
        earlier attempt did not get to are cleared, then the order is flipped
        to ``completed`` only if nobody else has done so meanwhile.
        """
        order_id = order["id"]
        order_items = order.get("order_items") or []
        product_ids = sorted({item["product_id"] for item in order_items})
        total = to_money(order["total"]) if order.get("total") is not None else None
        logger.warning("Finishing interrupted order %s (%d items)", order_id, len(order_items))

        try:
            carts = self.client.table("carts").select("id").eq("user_id", user_id).limit(1).execute()
            if carts and carts.data:
                (
                    self.client.table("cart_items")
                    .delete()
                    .eq("cart_id", carts.data[0]["id"])
                    .in_("product_id", product_ids)
                    .execute()
                )
            response = (
                self.client.table("orders")
                .update({"status": "completed", "updated_at": datetime.now(timezone.utc).isoformat()})
                .eq("id", order_id)
                .eq("status", order["status"])
                .execute()
            )
        except Exception as e:
            raise translate_supabase_error(e, "finish interrupted order") from e

        if not response or not response.data:
            if await self._order_status(order_id) == "completed":
                logger.info("Order %s was completed by another delivery", order_id)
                return MaterializationResult(outcome="duplicate", order_id=order_id)
            raise OrderPersistenceError(f"Order {order_id} changed while being finished")

        return MaterializationResult(
            outcome="created",
            order_id=order_id,
            total=total,
            item_count=len(order_items),
        )

    async def _discard_stale_order(self, order: dict[str, Any]) -> None:
        """Remove an itemless order abandoned by an attempt that died after inserting it."""
        logger.warning("Discarding abandoned order %s before retrying", order["id"])
        try:
            (
                self.client.table("orders")
                .delete()
                .eq("id", order["id"])
                .eq("status", order["status"])
                .execute()
            )
        except Exception as e:
            raise translate_supabase_error(e, "discard abandoned order") from e

    async def _resume_existing(
        self, existing: dict[str, Any], user_id: str, stripe_session_id: str
    ) -> MaterializationResult | None:
        """Decide what to do with an order already recorded for this session.

        Returns a result when the delivery is settled by the existing order,
        or None when the caller should build the order from the cart.
        """
        if existing.get("status") == "completed":
            logger.info("Order %s already exists for session %s", existing["id"], stripe_session_id)
            return MaterializationResult(outcome="duplicate", order_id=existing["id"])

        if existing.get("order_items"):
            return await self._finish_order(existing, user_id)

        if not self._is_stale(existing):
            logger.info("Order %s for session %s is still being written", existing["id"], stripe_session_id)
            raise OrderPersistenceError(f"Order for session {stripe_session_id} is still being written")

        await self._discard_stale_order(existing)
        return None

    async def materialize_from_session(self, session: dict[str, Any]) -> MaterializationResult:
        """Create the order for a completed checkout session.

        The order reflects the cart at the time the notification is handled.
        Line prices come from the products table; amounts reported by Stripe
        are never used for the total.

        Args:
            session: The ``checkout.session`` object from the webhook event.

        Returns:
            MaterializationResult: What happened.

        Raises:
            MissingCorrelationError: Session metadata has no user_id.
            CartNotFoundError: User has no cart, or the cart is empty.
            OrderPersistenceError: A write failed and was rolled back.
        """
        metadata = session.get("metadata") or {}
        user_id = metadata.get("user_id")
        if not user_id:
            logger.error("Checkout session %s has no user_id metadata", session.get("id"))
            raise MissingCorrelationError()

        stripe_session_id = session.get("id")
        if not stripe_session_id:
            raise MissingCorrelationError("Checkout session has no id")

        payment_status = session.get("payment_status")
        if payment_status not in PAID_STATUSES:
            logger.info(
                "Session %s completed with payment_status=%s; not materializing",
                stripe_session_id,
                payment_status,
            )
            return MaterializationResult(outcome="skipped")

        existing = await self._find_order_by_session(stripe_session_id)
        if existing:
            resumed = await self._resume_existing(existing, user_id, stripe_session_id)
            if resumed is not None:
                return resumed

        cart = await self._get_cart(user_id)
        items = await self._load_cart_items(cart["id"])
        if not items:
            raise CartNotFoundError(f"Cart for user {mask_identifier(user_id)} has no items")

        subtotal = compute_subtotal(items)
        tax = cents_to_money((session.get("total_details") or {}).get("amount_tax"))
        shipping_cost = cents_to_money((session.get("shipping_cost") or {}).get("amount_total"))
        total = subtotal

        reported = session.get("amount_total")
        if reported is not None and cents_to_money(reported) != subtotal + tax + shipping_cost:
            logger.warning(
                "Session %s reported %s but cart prices give %s",
                stripe_session_id,
                cents_to_money(reported),
                subtotal + tax + shipping_cost,
            )

        customer_details = session.get("customer_details") or {}
        shipping_details = session.get("shipping_details") or (
            (session.get("collected_information") or {}).get("shipping_details")
        )

        order_data: OrderCreate = {
            "user_id": user_id,
            "status": "processing",
            "total": str(total),
            "subtotal": str(subtotal),
            "tax": str(tax),
            "shipping_cost": str(shipping_cost),
            "stripe_session_id": stripe_session_id,
            "payment_status": payment_status,
            "customer_email": customer_details.get("email"),
            "shipping_details": shipping_details,
        }

        try:
            response = self.client.table("orders").insert(order_data).execute()
        except Exception as e:
            if is_unique_violation(e):
                logger.info("Session %s is being materialized by another delivery", stripe_session_id)
                return MaterializationResult(outcome="duplicate")
            logger.error("Order insert failed for session %s: %s", stripe_session_id, type(e).__name__)
            raise OrderPersistenceError() from e

        order_id = response.data[0]["id"]
        log = CompensationLog()
        log.record(
            f"delete order {order_id}",
            lambda: self.client.table("orders").delete().eq("id", order_id).eq("status", "processing").execute(),
        )

        try:
            self.client.table("order_items").insert(
                [
                    {
                        "order_id": order_id,
                        "product_id": item["product_id"],
                        "quantity": item["quantity"],
                        "price": str(item["price"]),
                    }
                    for item in items
                ]
            ).execute()
            log.record(
                f"delete items of order {order_id}",
                lambda: self.client.table("order_items").delete().eq("order_id", order_id).execute(),
            )

            cleared_rows: list[CartItem] = [
                {
                    "id": item["id"],
                    "cart_id": item["cart_id"],
                    "product_id": item["product_id"],
                    "quantity": item["quantity"],
                }
                for item in items
            ]
            self.client.table("cart_items").delete().in_("id", [item["id"] for item in items]).execute()
            log.record(
                f"restore {len(cleared_rows)} cart items",
                lambda: self.client.table("cart_items").insert(cleared_rows).execute(),
            )

            flipped = (
                self.client.table("orders")
                .update({"status": "completed", "updated_at": datetime.now(timezone.utc).isoformat()})
                .eq("id", order_id)
                .eq("status", "processing")
                .execute()
            )
            if not flipped or not flipped.data:
                raise OrderPersistenceError(f"Order {order_id} was no longer processing")
        except Exception as e:
            if await self._order_status(order_id) == "completed":
                logger.info("Order %s was completed by another delivery", order_id)
                return MaterializationResult(outcome="duplicate", order_id=order_id)
            logger.error("Materializing order %s failed: %s; rolling back", order_id, type(e).__name__)
            failed = log.rollback()
            if failed:
                logger.error("Order %s left partially written: %s", order_id, ", ".join(failed))
            raise OrderPersistenceError() from e

        logger.info(
            "Order %s completed for user %s: %d items, total %s",
            order_id,
            mask_identifier(user_id),
            len(items),
            total,
        )
        return MaterializationResult(
            outcome="created",
            order_id=order_id,
            total=total,
            item_count=len(items),
        )
