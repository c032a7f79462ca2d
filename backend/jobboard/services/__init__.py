"""Domain services: pricing, ad lifecycle, payment reconciliation, jumps and housekeeping."""
