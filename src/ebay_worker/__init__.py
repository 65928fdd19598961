"""Background worker syncing eBay orders and shipment trackings into Discord notifications."""
