"""Tests for the PCA facade, configuration, flattening and CLI."""
import numpy as np
import polars as pl
import pytest

from powerpca.config import CONFIG, SolverConfig, load_config
from powerpca.pairs import EigenDecomposition, EigenPair


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def factor_data():
    """200 rows, 4 columns driven by one latent factor → one dominant PC."""
    np.random.seed(42)
    t = np.random.randn(200)
    return np.outer(t, [1.0, 2.0, 3.0, 4.0]) + np.random.randn(200, 4) * 0.1


@pytest.fixture
def centered_data():
    """300 rows, 4 columns, covariance ≈ Q diag(16, 4, 1, 0.25) Qᵗ."""
    np.random.seed(7)
    Q, _ = np.linalg.qr(np.random.randn(4, 4))
    X = np.random.randn(300, 4) * np.array([4.0, 2.0, 1.0, 0.5]) @ Q.T
    return X - X.mean(axis=0)


# ---------------------------------------------------------------------------
# Preprocessing helpers
# ---------------------------------------------------------------------------

class TestPreprocessing:

    def test_standardize(self, factor_data):
        from powerpca.pca import standardize
        Z = standardize(factor_data)
        assert np.allclose(Z.mean(axis=0), 0.0, atol=1e-12)
        assert np.allclose(Z.std(axis=0), 1.0, atol=1e-12)

    def test_standardize_constant_column(self):
        from powerpca.pca import standardize
        X = np.column_stack([np.arange(5.0), np.full(5, 3.0)])
        Z = standardize(X)
        assert np.all(Z[:, 1] == 0.0)

    def test_covariance_matches_numpy(self, centered_data):
        from powerpca.pca import covariance_matrix
        cov = covariance_matrix(centered_data)
        assert np.allclose(cov, np.cov(centered_data, rowvar=False))
        assert np.array_equal(cov, cov.T)

    def test_covariance_needs_two_rows(self):
        from powerpca.pca import covariance_matrix
        with pytest.raises(ValueError):
            covariance_matrix(np.ones((1, 3)))

    def test_effective_dimension(self):
        from powerpca.pca import effective_dimension
        assert effective_dimension([1.0, 1.0]) == pytest.approx(2.0)
        assert effective_dimension([5.0, 0.0, 0.0]) == pytest.approx(1.0)
        assert effective_dimension([]) == 0.0


# ---------------------------------------------------------------------------
# PrincipalComponents
# ---------------------------------------------------------------------------

class TestPrincipalComponents:

    def test_transform_before_fit(self):
        from powerpca.pca import PrincipalComponents
        with pytest.raises(RuntimeError):
            PrincipalComponents().transform(np.ones((3, 2)))

    def test_dominant_component(self, factor_data):
        from powerpca.pca import PrincipalComponents, covariance_matrix, standardize
        model = PrincipalComponents().fit(factor_data)
        top = np.linalg.eigvalsh(covariance_matrix(standardize(factor_data)))[-1]
        assert model.eigenvalues_[0] == pytest.approx(top, rel=1e-4)
        assert model.explained_variance_ratio_[0] > 0.95
        assert abs(np.sum(model.explained_variance_ratio_) - 1.0) < 1e-10

    def test_fit_transform_matches_transform(self, factor_data):
        from powerpca.pca import PrincipalComponents
        model = PrincipalComponents(n_components=2)
        scores = model.fit_transform(factor_data)
        assert scores.shape == (200, 2)
        assert model.components_.shape == (4, 2)
        assert np.allclose(scores, model.transform(factor_data))

    def test_unstandardized_matches_reference(self, centered_data):
        from powerpca.pca import PrincipalComponents
        model = PrincipalComponents(standardize=False).fit(centered_data)
        reference = np.sort(np.linalg.eigvalsh(np.cov(centered_data, rowvar=False)))[::-1]
        assert np.allclose(model.eigenvalues_, reference, rtol=1e-3)
        assert np.all(model.mean_ == 0.0)
        gram = model.components_.T @ model.components_
        assert np.allclose(gram, np.eye(gram.shape[0]), atol=1e-3)

    def test_config_passed_through(self, centered_data):
        from powerpca.pca import PrincipalComponents
        model = PrincipalComponents(standardize=False, config=SolverConfig(discard_threshold=2.0))
        model.fit(centered_data)
        # eigenvalues ≈ 16, 4, 1, 0.25: the last two fall under the threshold
        assert len(model.decomposition_) == 2
        assert model.decomposition_.n_discarded == 2


# ---------------------------------------------------------------------------
# compute_pca
# ---------------------------------------------------------------------------

class TestComputePCA:

    def test_output_keys(self, factor_data):
        from powerpca.pca import compute_pca
        result = compute_pca(factor_data)
        expected_keys = [
            'eigenvalues', 'explained_ratio', 'cumulative_variance',
            'total_variance', 'retained_variance', 'effective_dim',
            'decomposition', 'components', 'projected', 'n_rows',
            'n_features', 'n_components', 'n_discarded', 'n_unconverged',
        ]
        for key in expected_keys:
            assert key in result, f"Missing key: {key}"

    def test_total_variance_of_zscored_columns(self, factor_data):
        from powerpca.pca import compute_pca
        result = compute_pca(factor_data)
        # z-score uses population std, covariance uses m - 1
        assert result['total_variance'] == pytest.approx(4 * 200 / 199)

    def test_rank1_effective_dim(self, factor_data):
        from powerpca.pca import compute_pca
        result = compute_pca(factor_data)
        assert result['effective_dim'] < 1.1

    def test_cumulative_ends_at_one(self, factor_data):
        from powerpca.pca import compute_pca
        result = compute_pca(factor_data)
        assert result['cumulative_variance'][-1] == pytest.approx(1.0)

    def test_nan_rows_excluded(self, factor_data):
        from powerpca.pca import compute_pca
        X = factor_data.copy()
        X[3, 0] = np.nan
        X[7, :] = np.inf
        result = compute_pca(X)
        assert result['n_rows'] == 198
        assert result['projected'].shape[0] == 198

    def test_too_few_rows(self):
        from powerpca.pca import compute_pca
        result = compute_pca(np.array([[1.0, 2.0, 3.0]]))
        assert result['n_rows'] == 0
        assert result['n_components'] == 0
        assert np.isnan(result['effective_dim'])

    def test_constant_matrix_gives_empty_decomposition(self):
        from powerpca.pca import compute_pca
        result = compute_pca(np.ones((6, 3)))
        assert result['n_components'] == 0
        assert result['n_discarded'] == 3
        assert result['projected'].shape == (6, 0)
        assert result['explained_ratio'].shape == (0,)

    def test_max_components(self, centered_data):
        from powerpca.pca import compute_pca
        result = compute_pca(centered_data, standardize_columns=False, max_components=2)
        assert result['n_components'] == 2
        assert result['components'].shape == (4, 2)
        assert result['projected'].shape == (300, 2)


# ---------------------------------------------------------------------------
# Sign continuity
# ---------------------------------------------------------------------------

class TestAlignSigns:

    def _decomposition(self, vectors):
        pairs = tuple(EigenPair(float(3 - i), v) for i, v in enumerate(vectors))
        return EigenDecomposition(dimension=len(vectors[0]), pairs=pairs)

    def test_flip_detection(self):
        from powerpca.continuity import align_signs
        prev = self._decomposition([[1, 0, 0], [0, 1, 0], [0, 0, 1]])
        curr = self._decomposition([[-1, 0, 0], [0, 1, 0], [0, 0, -1]])
        aligned = align_signs(curr, prev)
        assert np.allclose(aligned.eigenvectors, np.eye(3))
        assert np.allclose(aligned.eigenvalues, curr.eigenvalues)

    def test_no_reference_returns_current(self):
        from powerpca.continuity import align_signs
        curr = self._decomposition([[1, 0], [0, 1]])
        assert align_signs(curr, None) is curr

    def test_dimension_mismatch_returns_current(self):
        from powerpca.continuity import align_signs
        curr = self._decomposition([[1, 0], [0, 1]])
        prev = self._decomposition([[1, 0, 0]])
        assert align_signs(curr, prev) is curr

    def test_extra_pairs_untouched(self):
        from powerpca.continuity import align_signs
        curr = self._decomposition([[-1, 0], [0, -1]])
        prev = self._decomposition([[1, 0]])
        aligned = align_signs(curr, prev)
        assert np.allclose(aligned[0].eigenvector, [1, 0])
        assert np.allclose(aligned[1].eigenvector, [0, -1])


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

class TestBatch:

    def test_batch_sequence(self, centered_data):
        from powerpca.pca import compute_pca_batch
        np.random.seed(1)
        matrices = [centered_data + np.random.randn(*centered_data.shape) * 0.05 for _ in range(4)]
        results = compute_pca_batch(matrices, list(range(4)), standardize_columns=False)
        assert len(results) == 4
        for i, r in enumerate(results):
            assert r['I'] == i
            assert r['n_components'] == 4

    def test_batch_signs_consistent(self, centered_data):
        from powerpca.pca import compute_pca_batch
        np.random.seed(2)
        matrices = [centered_data + np.random.randn(*centered_data.shape) * 0.05 for _ in range(3)]
        results = compute_pca_batch(matrices, [0, 1, 2], standardize_columns=False)
        for prev, curr in zip(results, results[1:]):
            dots = np.sum(prev['components'] * curr['components'], axis=0)
            assert np.all(dots > 0)

    def test_projected_follows_flip(self, centered_data):
        from powerpca.pca import compute_pca_batch
        results = compute_pca_batch([centered_data, centered_data], [0, 1], standardize_columns=False)
        assert np.allclose(results[0]['projected'], results[1]['projected'])


# ---------------------------------------------------------------------------
# Flatten
# ---------------------------------------------------------------------------

class TestFlatten:

    def test_flatten_keys(self, factor_data):
        from powerpca.pca import compute_pca
        from powerpca.flatten import flatten_result
        flat = flatten_result(compute_pca(factor_data), max_components=3)
        assert 'effective_dim' in flat
        assert 'eigenvalue_0' in flat
        assert 'explained_ratio_0' in flat
        assert 'cumulative_variance_2' in flat
        for k, v in flat.items():
            assert isinstance(v, (int, float)), f"Key {k} has non-scalar value: {type(v)}"

    def test_fixed_width_nan_fill(self, centered_data):
        from powerpca.pca import compute_pca
        from powerpca.flatten import flatten_result
        result = compute_pca(centered_data, standardize_columns=False, max_components=2)
        flat = flatten_result(result, max_components=4)
        assert np.isfinite(flat['eigenvalue_1'])
        assert np.isnan(flat['eigenvalue_3'])

    def test_include_loadings(self, factor_data):
        from powerpca.pca import compute_pca
        from powerpca.flatten import flatten_result
        flat = flatten_result(compute_pca(factor_data), include_loadings=True)
        assert 'pc0_feat3' in flat

    def test_batch_to_frame(self, centered_data):
        from powerpca.pca import compute_pca_batch
        from powerpca.flatten import flatten_batch, to_frame
        results = compute_pca_batch([centered_data] * 3, [10, 11, 12], standardize_columns=False)
        df = to_frame(flatten_batch(results))
        assert df.height == 3
        assert df['I'].to_list() == [10, 11, 12]

    def test_variance_summary(self, centered_data):
        from powerpca.pca import compute_pca
        from powerpca.flatten import variance_summary
        result = compute_pca(centered_data, standardize_columns=False)
        summary = variance_summary(result)
        assert summary.height == result['n_components']
        assert summary['component'].to_list()[0] == 'PC1'

    def test_projected_frame(self):
        from powerpca.flatten import projected_frame
        df = projected_frame(np.arange(6.0).reshape(3, 2))
        assert df.columns == ['PC1', 'PC2']
        assert df['PC2'].to_list() == [1.0, 3.0, 5.0]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class TestConfig:

    def test_defaults(self):
        config = SolverConfig()
        assert config.tol == 1e-5
        assert config.max_iter == 100
        assert config.discard_threshold == 1e-5
        assert config.n_workers == 1
        assert CONFIG['power_iteration']['max_iter'] == 100

    def test_from_dict_flat(self):
        config = SolverConfig.from_dict({'tol': 1e-8, 'max_iter': 500})
        assert config.tol == 1e-8
        assert config.max_iter == 500

    def test_from_dict_sectioned(self):
        config = SolverConfig.from_dict({'decompose': {'discard_threshold': 1e-3}})
        assert config.discard_threshold == 1e-3
        assert config.tol == 1e-5

    def test_unknown_key(self):
        with pytest.raises(ValueError):
            SolverConfig.from_dict({'tolerance': 1e-8})
        with pytest.raises(ValueError):
            SolverConfig.from_dict({'power_iteration': {'bogus': 1}})

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            SolverConfig(tol=0.0)
        with pytest.raises(ValueError):
            SolverConfig(max_iter=0)
        with pytest.raises(ValueError):
            SolverConfig(n_workers=0)

    def test_replace_ignores_none(self):
        config = SolverConfig().replace(tol=None, max_iter=7)
        assert config.tol == 1e-5
        assert config.max_iter == 7

    def test_load_yaml(self, tmp_path):
        path = tmp_path / 'solver.yaml'
        path.write_text("power_iteration:\n  tol: 1.0e-7\n  max_iter: 250\nn_workers: 2\n")
        config = load_config(path)
        assert config.tol == 1e-7
        assert config.max_iter == 250
        assert config.n_workers == 2

    def test_load_yaml_bare_exponent(self, tmp_path):
        path = tmp_path / 'solver.yaml'
        path.write_text(
            "power_iteration:\n  tol: 1e-6\n  max_iter: 300\n"
            "decompose:\n  discard_threshold: 1e-5\n"
        )
        config = load_config(path)
        assert isinstance(config.tol, float)
        assert config.tol == 1e-6
        assert config.discard_threshold == 1e-5
        assert config.max_iter == 300

    def test_numeric_strings_coerced(self):
        config = SolverConfig.from_dict({'tol': '1e-6', 'max_iter': '50', 'n_workers': 2.0})
        assert config.tol == 1e-6
        assert config.max_iter == 50
        assert isinstance(config.max_iter, int)
        assert isinstance(config.n_workers, int)

    def test_non_numeric_names_key(self):
        with pytest.raises(ValueError, match='tol'):
            SolverConfig.from_dict({'tol': 'tight'})
        with pytest.raises(ValueError, match='max_iter'):
            SolverConfig.from_dict({'max_iter': None})

    def test_fractional_count_rejected(self):
        with pytest.raises(ValueError, match='max_iter'):
            SolverConfig(max_iter=10.5)
        with pytest.raises(ValueError, match='min_rows_per_worker'):
            SolverConfig(min_rows_per_worker=2.5)

    def test_load_empty_yaml(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text("")
        assert load_config(path) == SolverConfig()

    def test_load_non_mapping(self, tmp_path):
        path = tmp_path / 'list.yaml'
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            load_config(path)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

class TestCLI:

    @pytest.fixture
    def table(self, tmp_path, factor_data):
        df = pl.DataFrame({
            'label': [f'row{i}' for i in range(len(factor_data))],
            'a': factor_data[:, 0],
            'b': factor_data[:, 1],
            'c': factor_data[:, 2],
            'd': factor_data[:, 3],
        })
        path = tmp_path / 'data.csv'
        df.write_csv(path)
        return path

    def test_run_writes_outputs(self, table, tmp_path):
        from powerpca.cli import run
        out = tmp_path / 'projected.parquet'
        summary = tmp_path / 'summary.csv'
        result = run(str(table), output_path=str(out), summary_path=str(summary), verbose=False)
        assert result['columns'] == ['a', 'b', 'c', 'd']
        projected = pl.read_parquet(out)
        assert projected.height == 200
        assert projected.columns[0] == 'PC1'
        assert pl.read_csv(summary).height == result['n_components']

    def test_run_selected_columns(self, table):
        from powerpca.cli import run
        result = run(str(table), columns=['a', 'b'], verbose=False)
        assert result['n_features'] == 2

    def test_run_prints_summary(self, table, capsys):
        from powerpca.cli import run
        run(str(table), verbose=True)
        out = capsys.readouterr().out
        assert 'PC1' in out
        assert 'explained=' in out

    def test_missing_column(self, table):
        from powerpca.cli import run
        with pytest.raises(ValueError):
            run(str(table), columns=['zzz'], verbose=False)

    def test_unsupported_format(self, tmp_path):
        from powerpca.cli import read_table
        with pytest.raises(ValueError):
            read_table(str(tmp_path / 'data.xlsx'))

    def test_main(self, table, tmp_path):
        from powerpca.cli import main
        out = tmp_path / 'scores.csv'
        code = main([str(table), '--quiet', '--max-iter', '200', '--components', '2', '-o', str(out)])
        assert code == 0
        assert pl.read_csv(out).columns == ['PC1', 'PC2']

    def test_main_missing_input(self, tmp_path, capsys):
        from powerpca.cli import main
        code = main([str(tmp_path / 'nope.csv'), '--quiet'])
        assert code == 1
        assert 'does not exist' in capsys.readouterr().out

    def test_main_unknown_column(self, table, capsys):
        from powerpca.cli import main
        code = main([str(table), '--quiet', '--columns', 'zzz'])
        assert code == 1
        assert capsys.readouterr().out.startswith('Error:')

    def test_main_unsupported_format(self, tmp_path, capsys):
        from powerpca.cli import main
        path = tmp_path / 'data.xlsx'
        path.write_text('a,b\n1,2\n')
        code = main([str(path), '--quiet'])
        assert code == 1
        assert 'Unsupported input format' in capsys.readouterr().out

    def test_main_bad_config_value(self, table, tmp_path, capsys):
        from powerpca.cli import main
        config = tmp_path / 'solver.yaml'
        config.write_text("tol: tight\n")
        code = main([str(table), '--quiet', '--config', str(config)])
        assert code == 1
        assert 'tol' in capsys.readouterr().out

    def test_main_yaml_exponent_config(self, table, tmp_path):
        from powerpca.cli import main
        config = tmp_path / 'solver.yaml'
        config.write_text("power_iteration:\n  tol: 1e-6\n  max_iter: 300\n")
        assert main([str(table), '--quiet', '--config', str(config)]) == 0
