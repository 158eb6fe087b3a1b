"""Synthetic room, sonar ring and perimeter patrol used to exercise the layer end to end."""
