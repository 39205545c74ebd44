"""
Morphometric analysis package for Eocene-Oligocene larger foraminifera.

Modules:
    config            – shared constants (taxonomies, series, predictors, paths)
    loaders           – read, filter and age-sort the 2D, 3D and isotope tables
    reshape           – wide per-whorl columns -> long (variable, value) tables
    descriptive_stats – per-series summary statistics
    pairwise_tests    – Welch t-tests between the three time bins
    regression        – GLS (AR1) model-selection sweep against isotope predictors
    morphospace       – PCA, pairwise PERMANOVA, disparity bootstrap
    plots             – all visualisation routines
    run_all           – orchestrator: run every analysis + save report
"""
