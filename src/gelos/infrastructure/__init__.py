# Gelos infrastructure layer
