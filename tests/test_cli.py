import pytest

from cskel3d import cli
from cskel3d.cli import main, main_skeletonize, main_todelaunay
from cskel3d.io import load_mesh, write_obj
from cskel3d.shapes import box


@pytest.fixture
def box_obj(tmp_path):
    path = tmp_path / "box.obj"
    write_obj(str(path), *box((2.0, 1.0, 0.5), (2, 1, 1)))
    return path


def test_todelaunay_then_skeletonize(tmp_path, box_obj):
    conformed = tmp_path / "box_del.obj"
    vtk = tmp_path / "box.vtk"
    rc = main_todelaunay(["--meshinfile", str(box_obj), "--objoutfile", str(conformed), "--vtk", str(vtk)])
    assert rc == 0
    pts, faces = load_mesh(str(conformed))
    assert len(faces) >= len(load_mesh(str(box_obj))[1])
    assert "UNSTRUCTURED_GRID" in vtk.read_text()

    out = tmp_path / "out"
    rc = main_skeletonize(["--objinfile", str(conformed), "--epsilon", "0.01", "--relative",
                           "--pathout", str(out), "--poles", "--png", str(tmp_path / "skel.png")])
    assert rc == 0
    for name in ("sheets.obj", "sheets.mtl", "curves.obj", "poles.obj"):
        assert (out / name).exists()
    assert (tmp_path / "skel.png").stat().st_size > 0


def test_off_output(tmp_path, box_obj):
    out = tmp_path / "box.off"
    assert main_todelaunay(["--meshinfile", str(box_obj), "--objoutfile", str(out)]) == 0
    assert out.read_text().startswith("OFF")


def test_negative_epsilon_exits_2(tmp_path, box_obj, capsys):
    rc = main_skeletonize(["--objinfile", str(box_obj), "--epsilon=-1", "--pathout", str(tmp_path / "o")])
    assert rc == 2
    err = capsys.readouterr().err
    assert err.startswith("error: epsilon:")
    assert not (tmp_path / "o").exists()


def test_missing_input_exits_1(tmp_path, capsys):
    missing = tmp_path / "missing.obj"
    rc = main_skeletonize(["--objinfile", str(missing), "--epsilon", "0", "--pathout", str(tmp_path)])
    assert rc == 1
    assert f"error: {missing}:" in capsys.readouterr().err


def test_malformed_input_names_line(tmp_path, capsys):
    bad = tmp_path / "bad.obj"
    bad.write_text("v 0 0 0\nv 1 0 zz\n")
    rc = main_todelaunay(["--meshinfile", str(bad), "--objoutfile", str(tmp_path / "x.obj")])
    assert rc == 1
    assert f"error: {bad}:2:" in capsys.readouterr().err


def test_degenerate_input_exits_1(tmp_path, capsys):
    flat = tmp_path / "flat.obj"
    flat.write_text("v 0 0 0\nv 1 0 0\nv 0 1 0\nv 1 1 0\nf 1 2 3\nf 2 4 3\n")
    rc = main_todelaunay(["--meshinfile", str(flat), "--objoutfile", str(tmp_path / "x.obj")])
    assert rc == 1
    assert "coplanar" in capsys.readouterr().err


def test_non_manifold_strict(tmp_path, capsys):
    pts, faces = box()
    path = tmp_path / "open.obj"
    write_obj(str(path), pts, faces[:-1])
    rc = main_skeletonize(["--objinfile", str(path), "--epsilon", "0", "--pathout", str(tmp_path / "o"),
                           "--strict"])
    assert rc == 1
    assert "not closed" in capsys.readouterr().err


def test_missing_required_argument():
    with pytest.raises(SystemExit) as info:
        main_skeletonize(["--epsilon", "0"])
    assert info.value.code == 2


def test_main_dispatches_stages(tmp_path, box_obj):
    conformed = tmp_path / "box_del.obj"
    assert main(["todelaunay", "--meshinfile", str(box_obj), "--objoutfile", str(conformed)]) == 0
    assert conformed.exists()
    assert main(["skeletonize", "--objinfile", str(conformed), "--epsilon", "0",
                 "--pathout", str(tmp_path / "out")]) == 0
    assert (tmp_path / "out" / "sheets.obj").exists()


@pytest.mark.parametrize("argv", [[], ["hull"]])
def test_main_without_stage_exits_2(argv, capsys):
    assert main(argv) == 2
    assert "todelaunay,skeletonize" in capsys.readouterr().err


def test_internal_failure_exits_1(tmp_path, box_obj, capsys, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("point lies outside the super tetrahedron")

    monkeypatch.setattr(cli, "to_delaunay", broken)
    rc = main_todelaunay(["--meshinfile", str(box_obj), "--objoutfile", str(tmp_path / "x.obj")])
    assert rc == 1
    assert f"error: {box_obj}: point lies outside the super tetrahedron" in capsys.readouterr().err
