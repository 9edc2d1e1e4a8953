import enum

class UserRole(str, enum.Enum):
    customer = "customer"
    employee = "employee"
    manager = "manager"

class OrderStatus(str, enum.Enum):
    created = "CREATED"
    shipped = "SHIPPED"
    delivered = "DELIVERED"
    cancelled = "CANCELLED"
    completed = "COMPLETED"

class RestockState(str, enum.Enum):
    ordered = "ORDERED"
    arrived = "ARRIVED"
