"""Core building blocks: settings, errors, clocks, locks and the S3 client."""
