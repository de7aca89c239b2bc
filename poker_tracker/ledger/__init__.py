"""Session ledger: chip pricing, winnings and the check-in/check-out lifecycle."""
