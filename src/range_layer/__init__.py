# Range-sensor occupancy layer
#
# Probabilistic fusion of cone-shaped range readings (sonar, IR, ultrasonic)
# into a persistent per-cell occupancy-probability grid, folded every cycle
# into a shared obstacle map:
# 1. Readings are buffered from any producer thread
# 2. Each update cycle drains the buffer, classifies, resolves the cone and
#    Bayes-updates every affected cell
# 3. The merge phase thresholds the dirty region into the shared map
