# Homework Marker Backend Package
