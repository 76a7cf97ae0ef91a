"""
Domain exceptions. Each carries the HTTP status the API layer responds with;
``PersistenceUnavailable`` never reaches a client, it switches the request to
the in-memory fallback path.
"""


class BistroError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MenuReferenceError(BistroError):
    """The order references a menu item that cannot be ordered."""

    status_code = 400

    def __init__(self, message: str, menu_item_id: str) -> None:
        super().__init__(message)
        self.menu_item_id = menu_item_id


class MenuItemNotFound(MenuReferenceError):
    def __init__(self, menu_item_id: str) -> None:
        super().__init__(f"Menu item not found: {menu_item_id}", menu_item_id)


class MenuItemUnavailable(MenuReferenceError):
    def __init__(self, menu_item_id: str, name: str) -> None:
        super().__init__(f"Menu item not available: {name}", menu_item_id)


class OrderNotFound(BistroError):
    status_code = 404

    def __init__(self, order_id: str) -> None:
        super().__init__("Order not found")
        self.order_id = order_id


class OrderStateError(BistroError):
    """Illegal operation for the order's current status."""

    status_code = 409


class PersistenceUnavailable(BistroError):
    status_code = 503
