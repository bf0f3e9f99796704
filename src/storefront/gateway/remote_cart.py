"""Reference remote cart: the server-side cart the in-process cart service keeps.

One ``RemoteCart`` per signed-in user, keyed by the user id. Adds are
relative increments applied atomically inside the aggregate, which is what
lets the guest-cart merge sum quantities instead of overwriting them.
"""

from datetime import UTC, datetime

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront


@storefront.event(part_of="RemoteCart")
class RemoteCartLineAdded:
    """Some quantity of a product was added to a user's cart."""

    __version__ = 1

    owner_id = Identifier(required=True)
    product_id = String(required=True, max_length=255)
    quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="RemoteCart")
class RemoteCartQuantityUpdated:
    __version__ = 1

    owner_id = Identifier(required=True)
    product_id = String(required=True, max_length=255)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@storefront.event(part_of="RemoteCart")
class RemoteCartLineRemoved:
    __version__ = 1

    owner_id = Identifier(required=True)
    product_id = String(required=True, max_length=255)


@storefront.event(part_of="RemoteCart")
class RemoteCartCleared:
    __version__ = 1

    owner_id = Identifier(required=True)
    lines_removed = Integer(required=True)


@storefront.entity(part_of="RemoteCart")
class RemoteCartLine:
    product_id = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    position = Integer(default=0)
    added_at = DateTime()


@storefront.aggregate
class RemoteCart:
    owner_id = Identifier(identifier=True)
    lines = HasMany(RemoteCartLine)
    next_position = Integer(default=0)
    updated_at = DateTime()

    @classmethod
    def create(cls, owner_id):
        return cls(owner_id=owner_id, next_position=0, updated_at=datetime.now(UTC))

    def ordered_lines(self) -> list[RemoteCartLine]:
        return sorted(self.lines, key=lambda line: line.position)

    def quantity_of(self, product_id) -> int:
        line = self._line_for(product_id)
        return line.quantity if line else 0

    def add_line(self, product_id, quantity):
        """Add ``quantity`` of a product, summing onto an existing line."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity to add must be at least 1"]})

        now = datetime.now(UTC)
        line = self._line_for(product_id)
        if line:
            line.quantity += quantity
            new_quantity = line.quantity
        else:
            self.add_lines(
                RemoteCartLine(
                    product_id=str(product_id),
                    quantity=quantity,
                    position=self.next_position,
                    added_at=now,
                )
            )
            self.next_position += 1
            new_quantity = quantity
        self.updated_at = now

        self.raise_(
            RemoteCartLineAdded(
                owner_id=str(self.owner_id),
                product_id=str(product_id),
                quantity=quantity,
                new_quantity=new_quantity,
            )
        )

    def update_quantity(self, product_id, new_quantity):
        if new_quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        line = self._require_line(product_id)
        previous_quantity = line.quantity
        line.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            RemoteCartQuantityUpdated(
                owner_id=str(self.owner_id),
                product_id=str(product_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_line(self, product_id):
        line = self._require_line(product_id)
        self.remove_lines(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(RemoteCartLineRemoved(owner_id=str(self.owner_id), product_id=str(product_id)))

    def clear(self):
        lines = list(self.lines)
        for line in lines:
            self.remove_lines(line)
        self.updated_at = datetime.now(UTC)

        self.raise_(RemoteCartCleared(owner_id=str(self.owner_id), lines_removed=len(lines)))

    def _line_for(self, product_id):
        return next((line for line in self.lines if line.product_id == str(product_id)), None)

    def _require_line(self, product_id):
        line = self._line_for(product_id)
        if line is None:
            raise ObjectNotFoundError({"product_id": [f"Product {product_id} is not in the cart"]})
        return line


@storefront.command(part_of="RemoteCart")
class AddToRemoteCart:
    owner_id = Identifier(required=True)
    product_id = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="RemoteCart")
class UpdateRemoteCartQuantity:
    owner_id = Identifier(required=True)
    product_id = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)


@storefront.command(part_of="RemoteCart")
class RemoveFromRemoteCart:
    owner_id = Identifier(required=True)
    product_id = String(required=True, max_length=255)


@storefront.command(part_of="RemoteCart")
class ClearRemoteCart:
    owner_id = Identifier(required=True)


def cart_for(owner_id) -> RemoteCart:
    """The user's cart, or a fresh empty one if they never had one."""
    try:
        return current_domain.repository_for(RemoteCart).get(owner_id)
    except ObjectNotFoundError:
        return RemoteCart.create(owner_id=owner_id)


@storefront.command_handler(part_of=RemoteCart)
class ManageRemoteCartHandler:
    @handle(AddToRemoteCart)
    def add_to_cart(self, command):
        cart = cart_for(command.owner_id)
        cart.add_line(product_id=command.product_id, quantity=command.quantity)
        current_domain.repository_for(RemoteCart).add(cart)

    @handle(UpdateRemoteCartQuantity)
    def update_quantity(self, command):
        repo = current_domain.repository_for(RemoteCart)
        cart = repo.get(command.owner_id)
        cart.update_quantity(product_id=command.product_id, new_quantity=command.quantity)
        repo.add(cart)

    @handle(RemoveFromRemoteCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(RemoteCart)
        cart = repo.get(command.owner_id)
        cart.remove_line(product_id=command.product_id)
        repo.add(cart)

    @handle(ClearRemoteCart)
    def clear_cart(self, command):
        cart = cart_for(command.owner_id)
        cart.clear()
        current_domain.repository_for(RemoteCart).add(cart)
