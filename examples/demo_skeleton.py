# examples/demo_skeleton.py
from cskel3d.io import save_skeleton
from cskel3d.pipeline import SkeletonConfig, skeletonize, to_delaunay
from cskel3d.plot import plot_skeleton
from cskel3d.shapes import box

if __name__ == "__main__":
    pts, faces = box((4.0, 4.0, 0.5), (4, 4, 1))
    surface, _ = to_delaunay(pts, faces)

    res = skeletonize(surface.points, surface.faces(), SkeletonConfig(epsilon=0.05, relative=True))
    print("Raw:", res.raw_counts)
    print("Pruned:", res.skeleton.counts(), "epsilon =", res.epsilon)

    for path in save_skeleton(res.skeleton, "skeleton_out", poles=True):
        print("written", path)
    plot_skeleton(res.skeleton, "skeleton.png", surface=res.surface)
