"""Test-suite for the Smartmark API, change feed and client."""
