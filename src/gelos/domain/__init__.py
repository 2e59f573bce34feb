# Gelos domain layer
