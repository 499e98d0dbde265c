"""
line_detection.py

Module detecting elongated ridge structures (axons, dendrites) and erasing them from a
binary cell mask, so that they are neither merged into nor counted as cells.

Ridges are found following Steger's approach: Gaussian derivatives give the Hessian of
the image, whose eigenvector with the most negative eigenvalue points across a bright
line. A pixel lies on a line center when the first derivative along that direction
vanishes within the pixel. Center pixels are kept by hysteresis on the line strength
(negated eigenvalue), thinned, and traced into polylines with networkx.

Functions:
    ridge_strength(image, sigma): Line strength at line center pixels, zero elsewhere.
    line_mask(image, sigma, low, high): Hysteresis-thresholded line center pixels.
    skeleton_graph(skeleton): Graph of 8-connected skeleton pixels.
    longest_path(G): Longest shortest path of a connected graph.
    skeleton_traces(skeleton): Decompose a skeleton into ordered polylines.
    detect_lines(image, sigma, low, high): Detect LineTrace polylines in a grayscale image.
    rasterize_traces(shape, traces): Boolean stroke image of the traces.
    remove_lines(mask, traces): Copy of a mask with the traces set to background.
    suppress_axons(mask): Detect and remove lines from a binary mask.

Classes:
    LineTrace: Ordered polyline with per-point stroke width.
"""

import numpy as np
import scipy.ndimage as spi
import networkx as nx
from skimage.draw import line
from skimage.filters import apply_hysteresis_threshold
from skimage.morphology import skeletonize, dilation, disk

from constants import LINE_SIGMA, LINE_UPPER_THRESHOLD, LINE_LOWER_THRESHOLD, LINE_ANISOTROPY
from thresholding import otsu_mask

# 8-neighborhood offsets, each undirected pair listed once
NEIGHBOR_OFFSETS = ((0, 1), (1, -1), (1, 0), (1, 1))


class LineTrace:
    """
    Ordered polyline of a detected ridge.

    Attributes:
        pts (ndarray[int]): (N,2) array of (row, col) points in walking order.
        widths (ndarray[float]): Estimated stroke width at each point.
    """

    def __init__(self, pts: np.ndarray, widths: np.ndarray):
        self.pts: np.ndarray = np.asarray(pts, dtype=int).reshape((-1, 2))
        self.widths: np.ndarray = np.asarray(widths, dtype=float).reshape(-1)
        if self.widths.size != self.pts.shape[0]:
            raise ValueError(f"{self.widths.size} widths given for {self.pts.shape[0]} points")

    def __len__(self):
        return self.pts.shape[0]

    @property
    def width(self) -> float:
        """Mean stroke width of the trace."""
        return float(np.mean(self.widths)) if len(self) else 0.0

    def __repr__(self):
        return f"LineTrace(n={len(self)}, width={self.width:.2f})"


def ridge_strength(image: np.ndarray, sigma: float = LINE_SIGMA) -> np.ndarray:
    """
    Compute the strength of bright lines at their center pixels.

    Args:
        image (ndarray): 2D grayscale image.
        sigma (float): Sigma of the Gaussian derivative kernels.

    Returns:
        ndarray[float]: Negated dominant Hessian eigenvalue on line centers, 0 elsewhere.
    """
    im = image.astype(float)
    r_r = spi.gaussian_filter(im, sigma=sigma, order=(1, 0))
    r_c = spi.gaussian_filter(im, sigma=sigma, order=(0, 1))
    r_rr = spi.gaussian_filter(im, sigma=sigma, order=(2, 0))
    r_cc = spi.gaussian_filter(im, sigma=sigma, order=(0, 2))
    r_rc = spi.gaussian_filter(im, sigma=sigma, order=(1, 1))

    # eigenvalues of [[r_rr, r_rc], [r_rc, r_cc]], l1 <= l2
    root = np.sqrt((r_rr - r_cc) ** 2 + 4 * r_rc ** 2)
    l1 = (r_rr + r_cc - root) / 2
    l2 = (r_rr + r_cc + root) / 2

    # eigenvector of l1, picking the better conditioned of two equivalent forms
    v1 = np.stack((r_rc, l1 - r_rr))
    v2 = np.stack((l1 - r_cc, r_rc))
    use_v1 = np.sum(v1 ** 2, axis=0) >= np.sum(v2 ** 2, axis=0)
    n = np.where(use_v1[None], v1, v2)
    norm = np.sqrt(np.sum(n ** 2, axis=0))
    norm[norm == 0] = 1
    n_r, n_c = n / norm

    # sub-pixel position of the first derivative zero crossing along n
    with np.errstate(divide='ignore', invalid='ignore'):
        t = -(r_r * n_r + r_c * n_c) / l1
    centered = (np.abs(t * n_r) <= 0.5) & (np.abs(t * n_c) <= 0.5)

    # blobs bend equally in all directions, lines only across
    elongated = l2 >= LINE_ANISOTROPY * l1
    bright_line = (l1 < 0) & (np.abs(l1) >= np.abs(l2)) & elongated & centered
    return np.where(bright_line, -l1, 0.0)


def line_mask(image: np.ndarray, sigma: float = LINE_SIGMA,
              low: float = LINE_LOWER_THRESHOLD, high: float = LINE_UPPER_THRESHOLD) -> np.ndarray:
    """
    Select line center pixels by hysteresis on the ridge strength.

    Args:
        image (ndarray): 2D grayscale image.
        sigma (float): Sigma of the Gaussian derivative kernels.
        low (float): Strength needed to extend a line.
        high (float): Strength needed to start a line.

    Returns:
        ndarray[bool]: One or two pixel wide line centers.
    """
    return apply_hysteresis_threshold(ridge_strength(image, sigma), low, high)


def skeleton_graph(skeleton: np.ndarray) -> nx.Graph:
    """
    Build an undirected graph of skeleton pixels with 8-connectivity edges.

    Args:
        skeleton (ndarray[bool]): 2D thin binary image.

    Returns:
        Graph: Nodes are (row, col) tuples.
    """
    G = nx.Graph()
    pts = np.argwhere(skeleton)
    G.add_nodes_from(map(tuple, pts))
    h, w = skeleton.shape
    for dr, dc in NEIGHBOR_OFFSETS:
        nbr = pts + (dr, dc)
        valid = (nbr[:, 0] < h) & (nbr[:, 1] >= 0) & (nbr[:, 1] < w)
        src, nbr = pts[valid], nbr[valid]
        hit = skeleton[nbr[:, 0], nbr[:, 1]]
        G.add_edges_from(zip(map(tuple, src[hit]), map(tuple, nbr[hit])))
    return G


def longest_path(G: nx.Graph) -> list:
    """
    Approximate the longest path of a connected graph by a double sweep.

    The farthest node from an arbitrary start is one end, the farthest node from it
    is the other. Exact on trees, which thinned lines mostly are.

    Args:
        G (Graph): Connected graph.

    Returns:
        list: Nodes of the path in walking order.
    """
    start = min(G.nodes)
    lengths = nx.single_source_shortest_path_length(G, start)
    first = max(lengths, key=lambda node: (lengths[node], node))
    paths = nx.single_source_shortest_path(G, first)
    last = max(paths, key=lambda node: (len(paths[node]), node))
    return paths[last]


def skeleton_traces(skeleton: np.ndarray) -> list[np.ndarray]:
    """
    Decompose a skeleton into ordered polylines.

    The longest path of each connected piece becomes a trace, its pixels are removed and the
    remaining branches are decomposed the same way. Single pixels do not form a trace.

    Args:
        skeleton (ndarray[bool]): 2D thin binary image.

    Returns:
        list of ndarray[int]: Each element is an (N,2) array of points with N >= 2.
    """
    G = skeleton_graph(skeleton)
    traces = []
    pending = [G.subgraph(c).copy() for c in nx.connected_components(G)]
    while pending:
        g = pending.pop()
        if g.number_of_nodes() < 2:
            continue
        path = longest_path(g)
        traces.append(np.array(path, dtype=int).reshape((-1, 2)))
        g.remove_nodes_from(path)
        pending.extend(g.subgraph(c).copy() for c in nx.connected_components(g))
    return traces


def detect_lines(image: np.ndarray, sigma: float = LINE_SIGMA,
                 low: float = LINE_LOWER_THRESHOLD, high: float = LINE_UPPER_THRESHOLD) -> list[LineTrace]:
    """
    Detect bright elongated structures in a grayscale image.

    The width at each trace point is estimated from the distance to the nearest background
    pixel of the Otsu-thresholded image.

    Args:
        image (ndarray): 2D grayscale image, typically 8-bit.
        sigma (float): Sigma of the Gaussian derivative kernels.
        low (float): Hysteresis low threshold on line strength.
        high (float): Hysteresis high threshold on line strength.

    Returns:
        list[LineTrace]: Detected traces, each with at least two points.
    """
    centers = line_mask(image, sigma, low, high)
    if not np.any(centers):
        return []

    dist = spi.distance_transform_edt(otsu_mask(image))
    traces = []
    for pts in skeleton_traces(skeletonize(centers)):
        widths = np.maximum(2 * dist[pts[:, 0], pts[:, 1]] - 1, 1)
        traces.append(LineTrace(pts, widths))
    return traces


def rasterize_traces(shape: tuple, traces: list[LineTrace]) -> np.ndarray:
    """
    Draw the traces as strokes of their mean width.

    Args:
        shape (tuple): (H, W) of the output image.
        traces (list[LineTrace]): Traces to draw; traces with fewer than two points are ignored.

    Returns:
        ndarray[bool]: Stroke pixels.
    """
    # group centerlines by stroke radius to dilate once per radius
    by_radius = {}
    for trace in traces:
        if len(trace) < 2:
            continue
        radius = int(np.ceil((trace.width - 1) / 2))
        center = by_radius.setdefault(radius, np.zeros(shape, dtype=bool))
        for (r0, c0), (r1, c1) in zip(trace.pts[:-1], trace.pts[1:]):
            rr, cc = line(r0, c0, r1, c1)
            inside = (rr >= 0) & (rr < shape[0]) & (cc >= 0) & (cc < shape[1])
            center[rr[inside], cc[inside]] = True

    stroke = np.zeros(shape, dtype=bool)
    for radius, center in by_radius.items():
        stroke |= dilation(center, disk(radius)) if radius > 0 else center
    return stroke


def remove_lines(mask: np.ndarray, traces: list[LineTrace]) -> np.ndarray:
    """
    Set the strokes of the traces to background.

    Args:
        mask (ndarray[bool]): Binary mask, not modified.
        traces (list[LineTrace]): Traces to erase.

    Returns:
        ndarray[bool]: New mask without the stroke pixels.
    """
    return mask & ~rasterize_traces(mask.shape, traces)


def suppress_axons(mask: np.ndarray) -> np.ndarray:
    """
    Detect line structures on a binary mask and erase them.

    Args:
        mask (ndarray[bool]): Thresholded (and despeckled) mask.

    Returns:
        ndarray[bool]: New mask without axon-like structures.
    """
    return remove_lines(mask, detect_lines(mask.astype(np.uint8) * 255))
