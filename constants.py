"""
constants.py

Module defining global constants for cell segmentation and colocalization analysis.

This module centralizes all tunable parameters used across the image processing
pipeline, including ridge detection sensitivities, local thresholding constants,
watershed tolerance, labeling conventions and the defaults of the configuration record.

Constants:
    LINE_SIGMA (float): Sigma of the Gaussian derivatives used for ridge detection.
    LINE_UPPER_THRESHOLD (float): Second derivative strength that seeds a ridge.
    LINE_LOWER_THRESHOLD (float): Second derivative strength that extends a ridge.
    LINE_ANISOTROPY (float): Largest ratio of along-line to across-line curvature.
    BERNSEN_CONTRAST (int): Local contrast below which Bernsen uses the global fallback.
    NIBLACK_K (float): Standard deviation weight of the Niblack threshold.
    NIBLACK_BIAS (float): Additive bias of the Niblack threshold.
    MID_GRAY (int): Global fallback cut for windows without contrast.
    WATERSHED_H (float): Minimal height of a distance map maximum to seed a basin.
    BG_L (int): Label value reserved for background pixels.
    LARGEST_CELL_DIAMETER (float): Default expected largest cell diameter in pixels.
    GAUSSIAN_BLUR_SIGMA (float): Default sigma of the blur before rethresholding.
    DESPECKLE_RADIUS (float): Default median filter radius for despeckling.
    OVERLAP_THRESHOLD (float): Default overlap ratio a cell must exceed to colocalize.
"""


# specific to ridge (axon/dendrite) detection
LINE_SIGMA = 1.61                           # sigma for gaussian derivatives
LINE_UPPER_THRESHOLD = 15.0                 # hysteresis high value on second derivative
LINE_LOWER_THRESHOLD = 5.0                  # hysteresis low value on second derivative
LINE_ANISOTROPY = 0.5                       # max ratio of along to across curvature

# specific to local thresholding
BERNSEN_CONTRAST = 15                       # minimal local contrast for bernsen
NIBLACK_K = 0.2                             # weight of local standard deviation
NIBLACK_BIAS = 0.0                          # offset added to niblack threshold
MID_GRAY = 128                              # fallback cut for flat windows

# specific to watershed
WATERSHED_H = 0.5                           # tolerance for distance map maxima

# specific to labeling
BG_L = -1                                   # background label

# defaults of the preprocessing parameters
LARGEST_CELL_DIAMETER = 30.0                # in pixels
GAUSSIAN_BLUR_SIGMA = 3.0                   # in pixels
DESPECKLE_RADIUS = 1.0                      # in pixels

# default of the colocalization parameters
OVERLAP_THRESHOLD = 0.5                     # fraction of query cell area
