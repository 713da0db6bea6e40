"""Equipment picked up from clients and returned through tickets."""
