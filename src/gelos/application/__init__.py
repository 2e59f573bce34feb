# Gelos application layer
