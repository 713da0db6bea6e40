"""Field-service work order management."""
