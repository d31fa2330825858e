"""IoT module -- sensor reading ingestion with alert classification."""
