# examples/demo_delaunay.py
from __future__ import annotations

from cskel3d.mesh import tetrahedralize
from cskel3d.pipeline import to_delaunay
from cskel3d.shapes import box


def main():
    # --- 1) Вхідні дані ---
    # Можеш змінити на читання з файлу (cskel3d.io.load_mesh)
    pts, faces = box((3.0, 2.0, 0.5), (3, 2, 1))

    # --- 2) Делоне для самих вершин ---
    mesh = tetrahedralize(pts, backend="internal")  # або "scipy"
    print(f"Вершини:          {len(pts)}")
    print(f"Граней поверхні:  {len(faces)}")
    print(f"Тетраедрів:       {mesh.tet_count()}")

    # --- 3) Валідація тетра-сітки ---
    print("VALIDATION:", mesh.validate())

    # --- 4) Поверхня, узгоджена з Делоне ---
    surface, mesh = to_delaunay(pts, faces)
    print(f"Після to_delaunay: {len(surface.points)} вершин, {len(surface.faces())} граней")

    # --- 5) boundary.off - гранична поверхня тетра-сітки ---
    mesh.write_boundary_off("boundary.off")
    print("boundary.off записано (граничні трикутники сітки).")

    # --- 6) volume.vtk - повна тетра-сітка ---
    mesh.write_vtk_unstructured("volume.vtk")
    print("volume.vtk записано (вся тетра-сітка для ParaView/MeshLab).")


if __name__ == "__main__":
    main()
