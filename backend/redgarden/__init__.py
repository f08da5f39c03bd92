"""Red Garden back office: notification dispatch and invoice generation workers."""
