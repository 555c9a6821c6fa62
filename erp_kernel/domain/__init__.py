"""Pure domain helpers for the ERP kernel."""
